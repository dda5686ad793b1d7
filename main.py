from app.inbox.run import _cli_entrypoint

if __name__ == "__main__":
    # Attaches to a browser started with --remote-debugging-port whose inbox
    # session is already logged in; see INBOX_BROWSER_CDP_URL.
    raise SystemExit(_cli_entrypoint())
