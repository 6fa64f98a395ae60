"""SmartClip: sound-event driven chunk selection.

This package decides which fixed-length audio chunks of a long recording to
keep, based on a ranked sound-event classification per chunk, and filters the
result for temporal continuity before handing it to a concatenator.
"""

__version__ = "0.1.0"
