"""Built-in lakebuild sub-commands, registered by :mod:`lakebuild.app`."""
