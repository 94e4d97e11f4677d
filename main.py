import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from questline.logger import setup_logging  # noqa: E402
from cli.questline_cmd import questline  # noqa: E402


def main():
    """Main entry point for the Questline CLI."""
    setup_logging()
    questline(obj={})


if __name__ == "__main__":
    main()
