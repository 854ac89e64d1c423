"""
FocusGuard

Webcam focus monitor: tracks head, gaze and torso landmarks against a
personal baseline and opens a redirect page after sustained inattention.
"""

__version__ = "1.0.0"
__author__ = "FocusGuard Team"
__description__ = "Webcam focus monitor that opens a redirect page after sustained inattention"
