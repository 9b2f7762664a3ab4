"""Allow running as ``python -m lua_bundler``."""

from lua_bundler.cli import main

if __name__ == "__main__":
    main()
