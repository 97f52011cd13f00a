"""
Claude Hub - Usage Examples

This script demonstrates various ways to use the Claude Hub package.
"""

import asyncio
import logging

from dotenv import load_dotenv

load_dotenv()

from claude_hub import ClaudeHub, ClaudeHubSync, HubConfig, Model, TextBlock
from claude_hub.core.exceptions import (
    AuthenticationError,
    ClaudeHubError,
    RateLimitError,
    ServerError,
    TimeoutError,
)
from claude_hub.tools.function_calling import create_tool_registry, execute_tool_uses
from claude_hub.utils.file_handling import document_block_from_url, image_block_from_url
from claude_hub.utils.logging import configure_logging


def basic_example(hub):
    """
    Basic example of using Claude Hub
    """
    message = hub.create_message(
        hub.chat_builder()
        .system("You are a helpful assistant.")
        .user("Tell me about the history of artificial intelligence.")
    )

    print("\n=== Basic Example Response ===")
    print(message.text)

    usage = message.usage
    print(f"\nUsage: {usage.total_tokens} tokens ({usage.input_tokens} input, {usage.output_tokens} output)")


def multimodal_example(hub):
    """
    Example of sending an image and a PDF along with text
    """
    image_url = "https://upload.wikimedia.org/wikipedia/commons/a/a7/Camponotus_flavomarginatus_ant.jpg"

    message = hub.create_message(
        hub.chat_builder().user([
            TextBlock.of("What can you tell me about this image?"),
            image_block_from_url(image_url),
        ])
    )

    # Option 2: a local file, inlined as base64
    # from claude_hub.utils.file_handling import image_block_from_file
    # hub.chat_builder().user([TextBlock.of("Describe this painting."), image_block_from_file("/path/to/image.jpg")])

    print("\n=== Multimodal Example Response ===")
    print(message.text)

    document = document_block_from_url("https://arxiv.org/pdf/1706.03762", title="Attention Is All You Need")
    message = hub.create_message(hub.chat_builder().user([document, TextBlock.of("Summarize the abstract.")]))
    print(message.text)


def get_current_weather(location: str, unit: str = "celsius") -> dict:
    """Get the current weather in a given location"""
    return {"location": location, "temperature": 22, "unit": unit, "condition": "sunny"}


def function_calling_example(hub):
    """
    Example of a tool_use round trip
    """
    registry = create_tool_registry(
        {"get_current_weather": get_current_weather},
        parameter_descriptions={"get_current_weather": {"location": "The city, e.g. San Francisco, CA"}},
    )
    question = "What's the weather like in San Francisco?"

    message = hub.create_message(hub.chat_builder().user(question).tools(registry["tools"]))

    print("\n=== Function Calling Example Response ===")
    print(message.text)

    if not message.tool_uses:
        return
    for tool_use in message.tool_uses:
        print(f"\nTool called: {tool_use.name}")
        print(f"Input: {tool_use.input}")

    # Send the tool results back to the model
    reply = execute_tool_uses(message, registry["available_functions"], registry["tools"])
    follow_up = hub.create_message(
        hub.chat_builder()
        .user(question)
        .assistant(message.content)
        .messages([reply])
        .tools(registry["tools"])
    )

    print("\nModel response with tool results:")
    print(follow_up.text)


def streaming_example(hub):
    """
    Example of streaming a response
    """
    print("\n=== Streaming Example Response ===")
    with hub.stream(hub.chat_builder().user("Write a short poem about the moon.")) as stream:
        for text in stream.text_stream:
            print(text, end="", flush=True)
        message = stream.get_final_message()
    print(f"\n\nStop reason: {message.stop_reason}")


def count_tokens_example(hub):
    """
    Example of counting input tokens before sending a request
    """
    request = hub.chat_builder().system("You are terse.").user("How many tokens is this?").build()
    count = hub.count_tokens(request)
    print("\n=== Token Count Example ===")
    print(f"Input tokens: {count.input_tokens}")


async def async_example():
    """
    Example of using Claude Hub with the async client
    """
    async with ClaudeHub(HubConfig.from_env(model=Model.CLAUDE_3_5_HAIKU_20241022.value)) as hub:
        message = await hub.create_message(hub.chat_builder().user("Explain quantum computing briefly."))

    print("\n=== Async Example Response ===")
    print(message.text)


def error_handling_example():
    """
    Example of error handling with Claude Hub
    """
    # An invalid API key triggers an authentication error
    hub = ClaudeHubSync(api_key="invalid-api-key")

    print("\n=== Error Handling Example ===")

    try:
        message = hub.create_message(hub.chat_builder().user("Hello, world!"))
        print(message.text)

    except AuthenticationError as e:
        print(f"Authentication error: {e.user_message()}")

    except RateLimitError as e:
        print(f"Rate limit exceeded, retry after {e.retry_after}s: {e}")

    except TimeoutError as e:
        print(f"Request timed out: {e}")

    except ServerError as e:
        print(f"Server error (HTTP {e.status}): {e}")

    except ClaudeHubError as e:
        print(f"General error: {e.debug_info()}")

    finally:
        hub.close()


def main():
    """
    Run all examples
    """
    print("\n=== Claude Hub Examples ===")
    configure_logging(level=logging.INFO)

    try:
        hub = ClaudeHubSync(HubConfig.from_env(log_requests=True))
    except ClaudeHubError as e:
        print(f"{e}. Please check your .env file.")
        return

    print(f"Running examples using model: {hub.cfg.model}")

    with hub:
        basic_example(hub)

        # Multimodal example - fetches remote files
        multimodal_example(hub)

        function_calling_example(hub)

        streaming_example(hub)

        count_tokens_example(hub)

        print(f"\nTotal usage: {hub.usage.requests} requests, {hub.usage.total_tokens} tokens")

    # Error handling example - can run without a valid API key
    error_handling_example()

    # Async example
    # asyncio.run(async_example())

    print("\n=== Examples Completed ===")


if __name__ == "__main__":
    main()
