"""
Sopen Core - boot orchestration

LAZY LOADING: the boot sequencer pulls in FastAPI and every client library,
so it is imported on first access. Lightweight modules (notifier, errors,
secure_logging) import each other freely without dragging it in.
"""

__all__ = [
    "BootSequencer",
    "Collaborators",
    "ServiceContext",
    "BootPhase",
    "BootState",
    "DependencyConnector",
    "DependencySpec",
    "Criticality",
    "ArtifactGuard",
    "Publisher",
    "PublishMode",
]

_lazy_modules = {
    "BootSequencer": (".boot_sequencer", "BootSequencer"),
    "Collaborators": (".boot_sequencer", "Collaborators"),
    "ServiceContext": (".boot_sequencer", "ServiceContext"),
    "BootPhase": (".boot_state", "BootPhase"),
    "BootState": (".boot_state", "BootState"),
    "DependencyConnector": (".dependency_connector", "DependencyConnector"),
    "DependencySpec": (".dependency_connector", "DependencySpec"),
    "Criticality": (".dependency_connector", "Criticality"),
    "ArtifactGuard": (".artifact_guard", "ArtifactGuard"),
    "Publisher": (".publish_mode", "Publisher"),
    "PublishMode": (".publish_mode", "PublishMode"),
}

_loaded_modules = {}


def __getattr__(name: str):
    """Lazy import handler - imports modules only when accessed."""
    if name in _lazy_modules:
        if name not in _loaded_modules:
            module_path, attr_name = _lazy_modules[name]
            import importlib
            module = importlib.import_module(module_path, package=__name__)
            _loaded_modules[name] = getattr(module, attr_name)
        return _loaded_modules[name]
    raise AttributeError(f"module 'sopen.core' has no attribute '{name}'")
