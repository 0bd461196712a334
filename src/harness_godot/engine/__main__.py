import sys

from harness_godot.engine.host import main

if __name__ == "__main__":
    sys.exit(main())
