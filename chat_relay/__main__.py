import sys

from chat_relay.cli import main

if __name__ == "__main__":
    sys.exit(main())
