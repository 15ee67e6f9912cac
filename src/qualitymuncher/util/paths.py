#!/usr/bin/python3

import pathlib

MUNCHED_SUFFIX = " (Quality Munched)"


def munched_output_path(input_path: pathlib.Path, extension: str) -> pathlib.Path:
    """
    Default output location: alongside the input, with a marker appended to the name.
    """
    return input_path.with_name(f"{input_path.stem}{MUNCHED_SUFFIX}{extension}")


def resolve_output_path(
    input_path: pathlib.Path,
    output: pathlib.Path | None,
    extension: str,
    multiple_inputs: bool = False,
) -> pathlib.Path:
    # a single output name can't be shared between several inputs, so it's ignored in that case
    if output is None or multiple_inputs:
        return munched_output_path(input_path, extension)
    if output.is_absolute():
        return output
    # relative outputs are placed next to the input
    return input_path.parent / output
