"""
Setup script for learncore.

learncore is the adaptive learning core of an AI tutoring product:

1. Retrieval - parent/child chunking that grounds generated answers in
   uploaded study material
2. Spaced Repetition - SM-2 scheduling for flashcards
3. Mastery Loop - diagnose, teach, re-test until the learner masters a topic

The 'learncore' command exposes all three from the terminal.
"""

from setuptools import find_packages, setup

setup(
    name="learncore",
    version="1.0.0",
    description="Adaptive learning core: grounded retrieval, SM-2 scheduling and mastery loops",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["learncore", "learncore.*"]),
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "learncore=learncore.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition retrieval mastery education",
)
