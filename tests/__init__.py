"""
Test suite for snapcheck.

Tests are organized by module:

- test_types.py: Entry, Block and DeferredRecording validation
- test_errors.py: Error codes, messages and to_dict()
- test_serializer.py: Formatter chain and canonical strings
- test_snapfile.py: Key encoding, decoding and the file container
- test_paths.py: Snapshot file location rules
- test_config.py: Update mode, CI detection and snapshot_dir
- test_store.py: SnapshotStore compare/record/skip/save
- test_session.py: Session lifecycle, count checks and whole runs
- test_plugin.py: The pytest plugin, run in-process (integration)

Run tests with: pytest
Skip the in-process plugin runs with: pytest -m "not integration"
"""
