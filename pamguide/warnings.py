import warnings


class PAMGuideWarning(UserWarning):
    """Base category for non-fatal conditions raised by pamguide."""


class TimestampParseWarning(PAMGuideWarning):
    """A recording's start time could not be read from its filename."""


# Only suppress specific, reviewed warnings here.


def configure_warnings():
    """
    Call this function at package import to apply pamguide's targeted warning filters.
    """
    # Report every timestamp fallback, not only the first one per call site;
    # a batch can contain many unparseable filenames.
    warnings.simplefilter("always", TimestampParseWarning)
