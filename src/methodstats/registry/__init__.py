from methodstats.registry.bindings import BindingRegistry, call_site_key

__all__ = [
    "BindingRegistry",
    "call_site_key",
]
