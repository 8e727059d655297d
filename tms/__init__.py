"""Training management core: assessment grading and learner progress."""
