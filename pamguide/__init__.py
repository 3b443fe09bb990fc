import importlib

# Use targeted warning configuration
from pamguide.warnings import configure_warnings

configure_warnings()

__version__ = "v0.1.0"

__license__ = "Revised BSD License"


def __getattr__(name):
    """Lazy import submodules so `import pamguide` stays light."""
    known_modules = [
        "acoustics",
        "config",
        "errors",
        "utils",
    ]

    if name in known_modules:
        return importlib.import_module(f"pamguide.{name}")

    raise AttributeError(f"module 'pamguide' has no attribute '{name}'")
