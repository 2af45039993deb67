"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["encrypt", "decrypt", "encrypt-text", "decrypt-text", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#F45935 bold",
        "command": "#0088ff bold",
    }
)

WELCOME_TITLE = "Vault CLI - password-based file encryption"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "vault> "
PASSWORD_PROMPT = "Password: "

HELP_TEXT = """Available commands:
  encrypt <input> <output>            Encrypt a file (AES-256-CBC, key from password)
  decrypt <input> <output>            Decrypt a file produced by 'encrypt'
  encrypt-text <text>                 Encrypt text, print hex payload
  decrypt-text <hex-payload>          Decrypt a hex payload, print text
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

The password is asked for after each command and is never echoed.
Files and hex payloads are interchangeable: both carry salt || iv || ciphertext.
Examples:
  encrypt report.pdf report.pdf.enc
  decrypt report.pdf.enc report-copy.pdf
  encrypt-text hello world"""
