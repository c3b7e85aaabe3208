import os
import subprocess


def run_fastapi():
    """Run the FastAPI backend."""
    subprocess.run(
        [
            "uvicorn",
            "app.main:app",
            "--host",
            os.getenv("HOST", "0.0.0.0"),
            "--port",
            os.getenv("PORT", "8000"),
            "--proxy-headers",
            "--workers",
            str(os.getenv("UVICORN_WORKERS", 1)),
        ],
        check=True,
    )


if __name__ == "__main__":
    print("[start] launching uvicorn on PORT=", os.getenv("PORT", "8000"), flush=True)
    run_fastapi()
