"""Fixed prompt templates for the auxiliary model."""

from __future__ import annotations

ENHANCE_SEARCH_TEMPLATE = """You are a search query optimization assistant. Your task is to enhance user queries to maximize clarity, precision, and relevance for web searches. Follow these steps:

1. **Understand the Query**: Analyze the user's input query to determine its core intent, scope, and potential ambiguities.
2. **Add Context**: Incorporate relevant details such as time frame, location, format, and intended audience, as applicable.
3. **Clarify and Refine**: Resolve vagueness, specify ambiguous terms, and ensure the query has a clear purpose.
4. **Structure for Results**: Organize the query to encourage search engines to return comprehensive, high-quality results.
5. **Length Constraint**: The enhanced query MUST be less than 400 characters in length.

For instance, if the input is: "Best restaurants near me," output an enhanced query like:
"Find highly-rated restaurants within a 5-mile radius of [specific location] offering [type of cuisine] suitable for [occasion]. Include recent reviews and price ranges."

Remember: Keep the enhanced query under 400 characters while maintaining clarity and relevance.

Context: {context}

Now, enhance the following query: {query}"""

EXTRACT_QUERY_TEMPLATE = """Extract only the enhanced search query from the following text. Output should be the query only, with no quotes, markdown, or extra formatting:

{text}"""

TITLE_SYSTEM_PROMPT = """Create a concise, 3-5 word phrase as a header for the following query, strictly adhering to the 3-5 word limit and avoiding the use of the word 'title', and do not generate any other text than the 3-5 word summary and do not use any markdown formatting or any asterisks for bold, and do NOT use quotation marks.
Examples of titles:
    Stock Market Trends
    Perfect Chocolate Chip Recipe
    Evolution of Music Streaming
    Remote Work Productivity Tips
    Artificial Intelligence in Healthcare
    Video Game Development Insights"""

ENHANCE_PROGRAMMING_TEMPLATE = """You are an expert in refining vague coding-related prompts. Your task is to take an input prompt and transform it into a clearer, more detailed, and structured version that improves specificity and relevance. Follow these steps:

1. **Identify missing details**: Determine what key information is lacking, such as programming language, frameworks, performance constraints, or specific goals.
2. **Enhance clarity**: Ensure the refined prompt is structured and unambiguous.
3. **Add specificity**: Include relevant details like libraries, performance considerations, or real-world use cases.
4. **Maintain original intent**: Ensure the improved prompt aligns with the user's initial question.
5. **Provide an improved version**: Output a refined prompt that is more effective for generating high-quality responses.

### **Examples:**

**Input:** "How do I use generics in TypeScript?"
**Refined Output:** "What are the best practices for using generics in TypeScript to create reusable and type-safe functions, classes, and interfaces? Explain concepts such as generic constraints (extends), default generic types, and key utility types like Partial<T> and Record<K, T>. Provide real-world examples of applying generics in APIs and component-based architectures."

**Input:** "How do I manage state in JavaScript?"
**Refined Output:** "What are the best state management techniques in JavaScript for modern web applications? Compare approaches such as React Context API, Redux, Zustand, and using built-in browser storage (localStorage, sessionStorage). Discuss their use cases, performance considerations, and best practices for managing global and local state efficiently."

**Input:** "What are some system design patterns?"
**Refined Output:** "What are the most commonly used system design patterns for building scalable and resilient distributed systems? Focus on patterns such as event-driven architecture, microservices, CQRS (Command Query Responsibility Segregation), and database sharding. Discuss their use cases, advantages, and trade-offs in large-scale applications."

Now, refine the following prompt:

{prompt}"""


def enhance_search_prompt(location_context: str, query: str) -> str:
    return ENHANCE_SEARCH_TEMPLATE.format(context=location_context, query=query)


def extract_query_prompt(enhanced_text: str) -> str:
    return EXTRACT_QUERY_TEMPLATE.format(text=enhanced_text)


def enhance_programming_prompt(prompt: str) -> str:
    return ENHANCE_PROGRAMMING_TEMPLATE.format(prompt=prompt)
