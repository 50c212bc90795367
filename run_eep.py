from __future__ import annotations
import sys
import eep_tool.main as _cli_mod

def main():
    if len(sys.argv) == 1:
        # без аргументов: справка вместо ошибки typer
        sys.argv.append("--help")
    _cli_mod.app()

if __name__ == "__main__":
    main()
