# Build and test driver scripts at the root are not test modules.
collect_ignore = ["setup.py", "test.py"]
