"""
SimpleBot terminal client.

Local profile (default): client rule table, typing delay, persisted chat log
and settings, optional speech in/out.
Remote profile (--remote URL): plain request/reply over the gateway.

Commands:
    /settings          toggle the settings panel (Ctrl/Cmd+K in the web UI)
    /toggle <name>     flip voiceInput | voiceOutput | autoSpeak | darkMode
    /mic               start/stop voice input (transcript lands in the input)
    /history           reprint the chat log
    /export            write the chat log to a .txt file
    /clear             clear the chat log
    /quit              exit
An empty line sends whatever voice input is pending.
"""

import argparse
import asyncio
import logging
from typing import Optional

from simplebot.capability import Unavailable
from simplebot.config import Config, configure_locale, configure_logging, load_config
from simplebot.controller import ConversationController
from simplebot.export import format_line
from simplebot.remote import GatewayClient
from simplebot.resolver import ReplyResolver
from simplebot.rules import load_rule_table
from simplebot.scheduler import AsyncioScheduler
from simplebot.speech_input import SpeechInput, probe_speech_input
from simplebot.speech_output import SpeechOutput, probe_speech_output
from simplebot.storage import LocalStorage, SessionStore, SettingsStore

logger = logging.getLogger("SIMPLEBOT.CLI")

HELP = __doc__.split("Commands:", 1)[1]


def build_controller(
    config: Config,
    scheduler,
    on_change=None,
    voice: bool = True,
) -> ConversationController:
    """Wire a controller from config. Speech capabilities are probed once here."""
    rules = load_rule_table(config.get("client.rules_path"))
    storage = LocalStorage(config.get("client.storage_dir"))
    language = config.get("client.language", "en-US")

    if voice:
        tts_cap = probe_speech_output(voice=config.get("speech_output.voice"))
        stt_cap = probe_speech_input(
            model_size=config.get("speech_input.model"),
            device=config.get("speech_input.device"),
            sample_rate=config.get("speech_input.sample_rate"),
            max_seconds=config.get("speech_input.max_seconds"),
            silence_seconds=config.get("speech_input.silence_seconds"),
            silence_threshold=config.get("speech_input.silence_threshold"),
        )
    else:
        tts_cap = Unavailable(reason="disabled by --no-voice")
        stt_cap = Unavailable(reason="disabled by --no-voice")

    return ConversationController(
        resolver=ReplyResolver(rules),
        session_store=SessionStore(storage),
        settings_store=SettingsStore(storage),
        scheduler=scheduler,
        speech_output=SpeechOutput(tts_cap, language=language),
        speech_input=SpeechInput(stt_cap, language=language),
        export_dir=config.get("client.export_dir", "."),
        on_change=on_change,
    )


def _print_settings(controller: ConversationController) -> None:
    print("Settings:")
    for key, value in controller.settings.to_dict().items():
        print(f"  {key:<12} {'on' if value else 'off'}")
    mic = "ready" if controller.mic_enabled else "unavailable"
    print(f"  (mic: {mic})")


async def _read_line(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, input, prompt)


def _handle_command(controller: ConversationController, line: str) -> bool:
    """Run a slash command. Returns False when the client should exit."""
    cmd, _, arg = line[1:].partition(" ")
    cmd = cmd.lower()
    if cmd in ("quit", "exit"):
        return False
    if cmd == "help":
        print(HELP)
    elif cmd == "settings":
        if controller.toggle_settings_panel():
            _print_settings(controller)
        else:
            print("(settings closed)")
    elif cmd == "toggle":
        try:
            controller.toggle_setting(arg.strip())
        except KeyError:
            print(f"Unknown setting {arg.strip()!r}")
        else:
            _print_settings(controller)
    elif cmd == "mic":
        if not controller.toggle_recognition():
            print("(voice input unavailable or disabled)")
    elif cmd == "history":
        for message in controller.messages:
            print(format_line(message))
    elif cmd == "export":
        path = controller.export()
        print(f"Exported to {path}")
    elif cmd == "clear":
        controller.clear()
        print("(chat cleared)")
    else:
        print(f"Unknown command /{cmd}. Try /help")
    return True


async def run_local_chat(config: Config, voice: bool = True) -> None:
    controller: Optional[ConversationController] = None

    def on_change(event: str) -> None:
        if event == "messages" and controller.messages:
            last = controller.messages[-1]
            if not last.is_user:
                print(f"\rBot: {last.text}")
        elif event == "state" and controller.is_typing:
            print("Bot is typing...")
        elif event == "listening":
            print("(listening...)" if controller.is_listening else "(mic off)")
        elif event == "transcript":
            print(f"(heard: {controller.input_buffer!r}; press Enter to send)")

    controller = build_controller(config, AsyncioScheduler(), on_change=on_change, voice=voice)

    print("SIMPLE CHATBOT. Type /help for commands.")
    for message in controller.messages:
        print(format_line(message))

    try:
        while True:
            try:
                line = await _read_line("> ")
            except EOFError:
                break
            line = line.strip()
            if line.startswith("/"):
                if not _handle_command(controller, line):
                    break
                continue
            if line:
                controller.set_input(line)
            if controller.is_typing:
                print("(wait for the reply)")
                continue
            controller.send()
    finally:
        controller.close()


async def run_remote_chat(url: str, origin: Optional[str] = None) -> None:
    async with GatewayClient(url, origin=origin) as client:
        print(f"Connected to {url}. Ctrl+D to quit.")
        while True:
            try:
                line = await _read_line("> ")
            except EOFError:
                break
            if not line.strip():
                continue
            print(f"Bot: {await client.ask(line)}")


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="SimpleBot terminal chat")
    parser.add_argument("--config", default="config.json", help="path to config.json")
    parser.add_argument("--remote", nargs="?", const="", default=None,
                        help="chat through the gateway (default URL from client.server_url)")
    parser.add_argument("--origin", default=None, help="Origin header for --remote")
    parser.add_argument("--no-voice", action="store_true", help="skip speech probing")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(config)
    configure_locale()

    try:
        if args.remote is not None:
            url = args.remote or config.get("client.server_url")
            asyncio.run(run_remote_chat(url, origin=args.origin))
        else:
            asyncio.run(run_local_chat(config, voice=not args.no_voice))
    except KeyboardInterrupt:
        print()


if __name__ == "__main__":
    main()
