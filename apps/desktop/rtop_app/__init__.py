"""rtop desktop app and command line entry points."""
