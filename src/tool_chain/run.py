# run.py
# Entry point. Config and wiring only, no logic lives here.
#
#   tool-chain "If I save 50€ a month for 8 years at 3%, what do I end up with?"
#
# With no arguments the demo prompts below are run in turn.

import sys

from tool_chain.chain import ChainController
from tool_chain.config import Settings
from tool_chain.display import ConsoleDisplay

PROMPTS = [
    # Single deterministic tool
    "If I save 150€ per month for 12 years at 4% interest, how much will I have?",

    # computeBMI → interpretMetrics, second step reads the first step's record
    "I am 180 cm tall and weigh 75 kg. What is my BMI and what does it mean?",

    # search → summarize chain
    "Find recent news on CO2 pricing in Germany and summarize it in 80 words.",

    # two calculations compared by step index
    "Which is more: 3 coffees a day at 2.80€ for a year, or a 900€ espresso machine?",
]


def main() -> None:
    settings = Settings.from_env()
    display = ConsoleDisplay()
    controller = ChainController.from_settings(settings, observer=display)

    prompts = [" ".join(sys.argv[1:])] if len(sys.argv) > 1 else PROMPTS
    for prompt in prompts:
        result = controller.run(prompt)
        display.summary(result)


if __name__ == "__main__":
    main()
