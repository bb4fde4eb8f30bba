from typing import Any, Mapping, Optional, Sequence

from azoth_deployment.constants import ZERO_ADDRESS


def _ask(question: str) -> None:
    """Exits the deployment when the operator answers 'n'."""
    answer = input(f"{question} Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        exit(-1)


def _continue() -> None:
    _ask("Continue")


def _format_argument(value: Any) -> str:
    if isinstance(value, bytes):
        return "0x" + value.hex()
    return str(value)


def _confirm_step(
    step_label: str,
    arguments: Sequence[Any],
    predictions: Optional[Mapping[str, str]] = None,
) -> None:
    """
    Prints the resolved arguments of a transaction and asks the operator to confirm it.

    Arguments that are predicted addresses are marked as such; a zero address
    needs a second confirmation.
    """
    predicted = {address: name for name, address in (predictions or {}).items()}
    if not arguments:
        print(f"\n(i) No arguments for {step_label}")
    else:
        print(f"\nArguments for {step_label}")

    for position, value in enumerate(arguments):
        note = ""
        if isinstance(value, str) and value in predicted:
            note = f" (predicted address of {predicted[value]})"
        print(f"\t[{position}]={_format_argument(value)}{note}")

    _ask(f"Deploy {step_label}")
    if ZERO_ADDRESS in arguments:
        _ask("Zero address detected in arguments; continue?")
