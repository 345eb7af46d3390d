"""chatrelay: multi-provider LLM chat routing with persistent, branchable history."""

__version__ = "0.3.0"
