"""Packaging for PracticeTrack.

Install for development:
    pip install -e ".[test]"
"""

from setuptools import setup

setup(
    name="PracticeTrack",
    version="0.1.0",
    description="Practice-session tracker: timer, REST API and statistics",
    packages=[
        "practicetrack",
        "practicetrack.api",
        "practicetrack.client",
        "practicetrack.database",
        "practicetrack.sheets",
        "practicetrack.stats",
        "practicetrack.timer",
    ],
    python_requires=">=3.10",
    install_requires=[
        "PyQt6>=6.5",
        "SQLAlchemy>=2.0",
        "Flask>=2.3",
        "Flask-Login>=0.6.3",
        "itsdangerous>=2.1",
        "Werkzeug>=2.3",
        "pydantic>=2.0",
        "requests>=2.31",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "practicetrack=practicetrack.__main__:main",
        ],
    },
)
