"""Exception types raised by the custom ensemble machinery."""


class ShapeError(ValueError):
    """A trial result or reduced result has an unsupported shape."""


class RepeatNotSupportedError(NotImplementedError):
    """An evaluator or problem generator asked for a trial to be repeated."""


def check_repeat(repeat: bool, trial_index: int) -> None:
    """Fail if a repeat of trial ``trial_index`` was requested.

    Args:
        repeat: Repeat flag handed to a generator or returned by an evaluator.
        trial_index: 1-based index of the trial.

    Raises:
        RepeatNotSupportedError: If ``repeat`` is true.
    """
    if repeat:
        raise RepeatNotSupportedError(
            f"Trial {trial_index} signals 'repeat', but repeating trials is not supported"
        )
