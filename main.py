# main.py
import argparse
import json
import logging
import sys

from stepengine.execution.executor import StepExecutor
from stepengine.execution.heuristics import SiteHeuristics
from stepengine.llm.llm_client import LLMClient
from stepengine.llm.suggestion_client import HttpSuggestionClient, LLMSuggestionClient
from stepengine.utils.utils import load_quirks_file


def build_suggestion_client(ai_mode: str, provider: str):
    if ai_mode == 'http':
        return HttpSuggestionClient()
    if ai_mode == 'llm':
        return LLMSuggestionClient(LLMClient(provider=provider))
    return None


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("playwright").setLevel(logging.INFO)

    logger = logging.getLogger(__name__)

    parser = argparse.ArgumentParser(description="Step Engine - executes parsed browser test steps")
    parser.add_argument('--file', type=str, required=True, help="Path to the JSON test file.")
    parser.add_argument('--headless', action='store_true', help="Run the browser headless (disables interactive capture).")
    parser.add_argument(
        '--ai',
        choices=['off', 'http', 'llm'],
        default='off',
        help="Selector suggestion source used when an element cannot be found: "
             "'http' (suggestion service), 'llm' (direct LLM call) or 'off'."
    )
    parser.add_argument('--provider', choices=['gemini', 'openai'], default='gemini', help="LLM provider for '--ai llm' (default: gemini). Choose openai for any OpenAI compatible LLMs.")
    parser.add_argument('--disable-fallbacks', action='store_true', help="Only use the exact selector; skip fallback strategies and AI assistance.")
    parser.add_argument('--quirks-file', type=str, help="JSON file with additional site quirks (overrides STEPENGINE_QUIRKS_FILE).")
    parser.add_argument('--timeout', type=int, default=10000, help="Default Playwright action timeout in milliseconds.")
    parser.add_argument('--report', type=str, help="Optional path to write the run result as JSON.")
    args = parser.parse_args()

    try:
        suggestion_client = build_suggestion_client(args.ai, args.provider)
        heuristics = SiteHeuristics.default(args.quirks_file or load_quirks_file())
    except (ValueError, FileNotFoundError) as e:
        logger.critical(f"Configuration error: {e}")
        sys.exit(2)

    print(f"Running in EXECUTE mode ({'Headless' if args.headless else 'Visible Browser'}). "
          f"AI assistance: {args.ai.upper()}. Fallbacks: {'DISABLED' if args.disable_fallbacks else 'ENABLED'}")

    executor = StepExecutor(
        suggestion_client=suggestion_client,
        headless=args.headless,
        default_timeout=args.timeout,
        disable_fallbacks=args.disable_fallbacks,
        heuristics=heuristics,
    )
    test_result = executor.run_test(args.file)

    print("\n" + "="*20 + " Execution Result " + "="*20)
    print(f"Test File: {test_result.get('test_file', 'N/A')}")
    print(f"Status: {test_result.get('status', 'UNKNOWN')}")
    print(f"Steps Executed: {test_result.get('steps_executed', 0)}")
    print(f"Duration: {test_result.get('duration_seconds', 'N/A')} seconds")
    print(f"Message: {test_result.get('message', 'N/A')}")
    if test_result.get('status') != 'PASS':
        print(f"Error Details: {test_result.get('error_details', 'N/A')}")
        if test_result.get('screenshot_on_failure'):
            print(f"Failure Screenshot: {test_result['screenshot_on_failure']}")
    print("="*58)

    if args.report:
        try:
            with open(args.report, 'w', encoding='utf-8') as f:
                json.dump(test_result, f, indent=2, ensure_ascii=False)
            print(f"Report saved to: {args.report}")
        except (OSError, TypeError) as e:
            logger.error(f"Could not write report to {args.report}: {e}")

    sys.exit(0 if test_result.get('status') == 'PASS' else 1)
