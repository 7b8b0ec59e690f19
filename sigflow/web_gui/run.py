import argparse
import logging
import threading
import requests

def main():
    parser = argparse.ArgumentParser(description='signal flow editor service')
    parser.add_argument('-d', '--debug', action='store_true', help='autoload modules on change')
    parser.add_argument('-x', '--headless', action='store_true', help='do not automatically load client in browser')
    parser.add_argument('--external', action='store_true', help='listen on all interfaces, including external (local connections only if not set)')
    parser.add_argument('-p', '--port', default=None, type=int, help='port on which to start the server')
    parser.add_argument('-c', '--config-file', type=str, help='path to JSON configuration to load')
    parser.add_argument('--channels', type=int, help='number of acquisition channels (overrides config)')
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)
    if args.config_file is not None:
        import json
        config = json.loads(open(args.config_file, 'rt').read())
    else:
        from sigflow.flow.configure import load_config
        config = load_config(name="config", fallback=True)
    if args.channels is not None:
        config["channel_count"] = args.channels
    port = args.port if args.port is not None else config.get("port", 8002)

    from sigflow.web_gui.server_flask import create_app
    app = create_app(config)
    if not args.headless:
        thread = threading.Thread(target=_open_browser_when_server_ready, args=(port,))
        thread.start()
    host = '0.0.0.0' if args.external else config.get('host', None)
    app.run(port=port, host=host, debug=args.debug)

def _open_browser_when_server_ready(port, retry_interval=0.2, max_retries=50):
    # Wait for the server to start
    retry_count = 0
    while retry_count < max_retries:
        try:
            requests.get("http://localhost:%d" % (port), timeout=retry_interval)
            break
        except requests.exceptions.ConnectionError:
            retry_count += 1
    import webbrowser
    webbrowser.open("http://localhost:%d" % (port))

if __name__ == '__main__':
    main()
