"""Sample bots runnable with ``topicflow run``."""
