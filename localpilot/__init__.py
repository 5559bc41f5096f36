"""LocalPilot - local automation agent.

A language model turns a natural-language task into a JSON plan of file,
shell and git actions; each action runs against a local workspace after
human or policy approval, and the outcomes are summarized back to the user.
"""

__version__ = "0.1.0"
