"""Merged branch sweeper.

Features:
- Refuse to run unless the default branch is checked out
- List local branches already merged into the default branch
- Dry run by default, delete with a non-force ``git branch -d``
- Verbose mode echoes each git command and streams its labeled output
- Branch protection patterns
"""

__version__ = "0.1.0"
