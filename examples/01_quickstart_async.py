import asyncio
from claude_hub import ClaudeHub, HubConfig, RetryPolicy

async def main():
    hub = ClaudeHub(HubConfig(
        api_key="ANTHROPIC_API_KEY",
        retry=RetryPolicy(max_retries=5),
    ))

    async with hub:
        message = await hub.create_message(
            hub.chat_builder()
            .system("Answer in two sentences.")
            .user("Say hi and summarize the benefits of a typed Messages API client.")
        )
    print(message.text)
    print(f"Usage: {message.usage.input_tokens} in, {message.usage.output_tokens} out")

if __name__ == "__main__":
    asyncio.run(main())
