#!/usr/bin/env python3
"""PracticeTrack API server, entry point.

Run with:
    python main.py
    python -m practicetrack
"""

from practicetrack.__main__ import main


if __name__ == "__main__":
    main()
