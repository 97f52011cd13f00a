import asyncio
from claude_hub import ClaudeHub, ClaudeHubError, HubConfig

QUESTIONS = [
    "What is a monad, in one sentence?",
    "Name three uses of a Bloom filter.",
    "Why do TCP connections need a handshake?",
]

async def main():
    async with ClaudeHub(HubConfig.from_env(max_tokens=256)) as hub:
        results = await asyncio.gather(
            *(hub.create_message(hub.chat_builder().user(q)) for q in QUESTIONS),
            return_exceptions=True,
        )

        for question, result in zip(QUESTIONS, results):
            print(f"\n> {question}")
            if isinstance(result, ClaudeHubError):
                print(f"Failed: {result.user_message()}")
            else:
                print(result.text)

        for usage in hub.usage.by_model.values():
            print(f"\n{usage.model}: {usage.requests} requests, {usage.total_tokens} tokens")

if __name__ == "__main__":
    asyncio.run(main())
