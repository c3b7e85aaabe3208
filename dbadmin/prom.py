from prometheus_client import CollectorRegistry

# Dedicated registry so /metrics only exposes this service's series.
REGISTRY = CollectorRegistry(auto_describe=True)
