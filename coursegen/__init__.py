"""Course generation job orchestration and progress tracking."""
