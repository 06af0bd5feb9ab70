"""
cogniweight CLI - Command Line Interface for the cognitive state engine

Provides terminal commands for:
- Inspecting the weight and review state of a note
- Classifying a note's learning stage
- Listing notes due for review
- Running the daily decay sweep
- Answering generated review questions
"""

from .main import cli

__all__ = ["cli"]
