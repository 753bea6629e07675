"""Built-in CLI sub-commands for cursetool."""
