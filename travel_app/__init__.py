"""
Travel Registry -- host-side services and command-line entry point.

Package layout:
    services/   Qt services (serialized task queue, debounced file watcher,
                reactive store wrapper)
    paths.py    Data directory resolution
    main.py     Headless CLI
"""
