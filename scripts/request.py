import json

from spamzero.client.client import SpamZeroAPIClient
from argparse import ArgumentParser


def main() -> None:
    """
    Entry point for the `spamzero-classify` CLI tool.

    Sends one message to a running SpamZero API, records the prediction in
    the history, and prints the prediction followed by the updated spam/ham
    statistics.

    Raises
    ------
    SystemExit
        If required arguments are missing or invalid.
    """
    parser = ArgumentParser("spamzero-classify")

    parser.add_argument(
        "--url",
        "-u",
        type=str,
        required=True,
        help="Base URL of the SpamZero API (e.g., http://localhost:8000)",
    )
    parser.add_argument(
        "--message",
        "-m",
        type=str,
        required=True,
        help="Text message to classify as spam or ham",
    )
    parser.add_argument(
        "--no-record",
        action="store_true",
        help="Only classify the message; do not save it to the history",
    )

    args = parser.parse_args()

    client = SpamZeroAPIClient(args.url)

    if args.no_record:
        response = client.predict(args.message)
    else:
        try:
            response = client.classify_and_record(args.message)
        except ValueError as exc:
            parser.error(str(exc))

    print(json.dumps(response, indent=2))
    print(json.dumps(client.stats(), indent=2))


if __name__ == "__main__":
    main()
