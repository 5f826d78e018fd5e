"""
StoryReel - Topic to vertical short video, one approved stage at a time.

A project moves through story analysis, script, storyboard and visual
assets, with a human review checkpoint after each of the last three, and
is finally rendered into a 1080x1920 MP4 with narration and subtitles.
"""

__version__ = "0.1.0"
