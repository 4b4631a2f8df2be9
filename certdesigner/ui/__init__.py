"""界面模块."""
