import asyncio
from claude_hub import ClaudeHub, HubConfig, ToolBuilder, execute_tool_uses

def get_weather(city: str) -> dict:
    return {"city": city, "condition": "rain", "temperature_c": 11}

async def main():
    hub = ClaudeHub(HubConfig.from_env())

    # Define tools
    tools = [
        ToolBuilder("get_weather")
        .description("Get weather by city")
        .property("city", {"type": "string"}, required=True)
        .build()
    ]

    builder = hub.chat_builder().user("Is it raining in Seattle? Use a tool if needed.").tools(tools)
    request = builder.build()

    # Stream the first turn
    async with hub.stream(request) as stream:
        async for text in stream.text_stream:
            print(text, end="", flush=True)
        message = await stream.get_final_message()

    if message.tool_uses:
        print(f"\nTool calls: {[t.name for t in message.tool_uses]}")
        reply = execute_tool_uses(message, {"get_weather": get_weather}, tools)
        follow_up = (
            hub.chat_builder()
            .messages([*request.messages, {"role": "assistant", "content": message.content}, reply])
            .tools(tools)
        )
        async with hub.stream(follow_up) as stream:
            async for text in stream.text_stream:
                print(text, end="", flush=True)

    print(f"\nUsage: {hub.usage.input_tokens} in, {hub.usage.output_tokens} out")
    await hub.aclose()

if __name__ == "__main__":
    asyncio.run(main())
