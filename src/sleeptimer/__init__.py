"""sleeptimer: pause your media and put the machine to sleep after a countdown."""

__version__ = "0.1.0"
