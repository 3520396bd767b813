"""Allow running as: python -m learncore"""

from learncore.cli.main import main

if __name__ == "__main__":
    main()
