"""guardc entrypoint: expands guard notation embedded in Python sources."""

import argparse
import logging
import os
import sys

from guard_lang import (
    GuardConfig,
    GuardError,
    GuardExpander,
    GuardParser,
    GuardPreprocessor,
    format_tree,
    render,
)

__all__ = ["run_repl", "main"]


def run_repl(config: GuardConfig):  # pragma: no cover
    print("Guard expansion shell. End a program with an empty line, 'exit' to leave.")
    parser = GuardParser(config)
    expander = GuardExpander(config)
    while True:
        lines = []
        try:
            while True:
                line = input(".. " if lines else ">> ")
                if not line.strip():
                    break
                lines.append(line)
        except EOFError:
            break
        text = "\n".join(lines).strip()
        if not text:
            continue
        if text in ("exit", "quit"):
            break
        try:
            print(render(expander.expand(parser.parse_text(text))) or "pass")
        except GuardError as e:
            print(f"error: {e}")


def _configure(args) -> GuardConfig:
    config = GuardConfig.from_env()
    if args.default_handler is not None:
        config.default_handler = args.default_handler
    if args.strict_braces:
        config.strict_braces = True
    if args.trace:
        config.trace = True
    if config.trace:
        logging.basicConfig(
            stream=sys.stderr,
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    return config


def main(argv=None):
    parser = argparse.ArgumentParser(description="Guard notation expander for Python")
    parser.add_argument("script", nargs="?", help="Python source with guard invocations")
    parser.add_argument("-e", "--expand", metavar="PROGRAM", help="Expand one guard program")
    parser.add_argument("-o", "--output", help="Write the transformed source to this path")
    parser.add_argument("--run", action="store_true", help="Execute the transformed source")
    parser.add_argument(
        "--default-handler",
        metavar="ACTION",
        help="Statement run when a guard fails and no handler is given (default: return)",
    )
    parser.add_argument(
        "--strict-braces",
        action="store_true",
        help="Reject brace blocks that are not followed by a refute handler",
    )
    parser.add_argument(
        "--tree", action="store_true", help="With -e, print the resolved guard tree"
    )
    parser.add_argument("--trace", action="store_true", help="Log parser decisions to stderr")
    args = parser.parse_args(argv)

    try:
        config = _configure(args)
        if args.expand is not None:
            guard_parser = GuardParser(config)
            expander = GuardExpander(config)
            program = guard_parser.parse_text(args.expand)
            if args.tree:
                print(format_tree(program, expander.default))
            else:
                print(render(expander.expand(program)))
            return

        if not args.script:
            run_repl(config)
            return

        entry_path = os.path.abspath(args.script)
        output = GuardPreprocessor(config).transform_file(entry_path)
        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(output)
        elif not args.run:
            sys.stdout.write(output)
    except (GuardError, OSError) as e:
        print(f"guard: error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.run:
        code = compile(output, entry_path, "exec")
        exec(code, {"__name__": "__main__", "__file__": entry_path})


if __name__ == "__main__":
    main()
