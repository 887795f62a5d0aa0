"""Prompt templates for the AI-backed tender actions."""

JSON_ONLY_INSTRUCTION = (
    "You MUST respond ONLY with a valid JSON object. Do not include any text before or after "
    "the JSON. The JSON should conform to this schema: {schema}"
)

TENDER_DETAILS_FROM_PAGE = """You are a procurement expert. Analyze the following text from a tender webpage and extract the key details.

Webpage Text:
---
{text}
---

Extract the following information:
1.  **title**: The official title of the tender.
2.  **summary**: A concise summary of the tender's scope and objective.
3.  **closingDate**: The submission deadline. Find the most likely closing date and return it ONLY in YYYY-MM-DD format. If multiple dates are present, pick the one explicitly labeled as the closing or submission date."""

TENDER_DETAILS_FROM_DOCUMENT = """You are a procurement expert. Analyze the attached document (RFP, RFQ, etc.) and extract the key details.

Extract the following information:
1.  **title**: The official title of the tender.
2.  **summary**: A concise summary of the tender's scope and objective.
3.  **closingDate**: The submission deadline. Find the most likely closing date and return it ONLY in YYYY-MM-DD format."""

SUMMARIZE_TEXT = """You are an expert procurement assistant. Summarize the following tender information from a web page concisely for a busy manager. Focus on the core requirements, deliverables, and any mentioned deadlines or key dates. Ignore navigation menus, ads, and boilerplate text. Present the output in clear, easy-to-read bullet points.

Tender Information:
---
{text}
---

Summary:"""

CATEGORIZE_TENDER = """Based on the following tender title and summary, provide a single, concise category for it (e.g., "IT Hardware", "Construction Services", "Medical Supplies", "Consulting"). Respond with ONLY the category name and nothing else.

Title: {title}
Summary: {summary}"""

TENDER_INSIGHTS = """Analyze the following tender information. Extract key terms/technologies as 'keywords' (an array of 3-5 strings). If a budget or value is explicitly mentioned (e.g., "budget of", "valued at"), extract it as a formatted string in 'estimatedValue'. If no value is mentioned, omit the 'estimatedValue' field entirely.

Title: {title}
Summary: {summary}"""

RISK_ASSESSMENT = """As an expert procurement and risk analyst, evaluate the following tender based on its summary, closing date, and our estimated quote value.
Provide a structured risk assessment in JSON format.

Tender Information:
- Title: {title}
- Summary: {summary}
- Closing Date: {closing_date}
- Our Estimated Quote Value: ${quote_value:.2f}

Analyze potential risks such as tight deadlines, unclear requirements, high competition (if inferable), logistical challenges, and financial viability.
Provide an overall risk level (Low, Medium, or High), list 3-5 key risks, suggest a mitigation strategy for each, and give a confidence score for your analysis."""

DOCUMENT_ANALYSIS = """You are an expert procurement document analyst. Analyze the attached document (e.g., RFP, RFQ, technical specs).
Extract the following information and provide it in a structured JSON format:
1.  **Summary**: A brief, one-paragraph summary of the document's main purpose.
2.  **Key Requirements**: A bulleted list of the most critical technical, operational, or commercial requirements mentioned.
3.  **Deadlines**: A list of any specific dates or deadlines mentioned in the document.
4.  **Risks or Red Flags**: A list of potential issues, ambiguities, or challenging requirements that could pose a risk to the bid."""

CATALOG_EXTRACTION = """Analyze the attached vendor quotation or proforma invoice. Extract each line item into a structured JSON array.
For each item, provide:
- 'itemName': The name or title of the product/service.
- 'description': A detailed description.
- 'cost': The unit price. This is the COST price from the vendor.
- 'uom': The unit of measure (e.g., "each", "pcs", "lot"), if available.
- 'manufacturer': The manufacturer name, if specified.
- 'model': The model number, if specified.
- 'hsnCode': The HSN (Harmonized System of Nomenclature) code, if available.
- 'technicalSpecs': An array of objects, where each object has a 'specName' and a 'specValue' for any technical specifications listed for the item.

If a field is not present for an item, omit it. Ensure the 'cost' is a number."""

TECHNICAL_SPECS = """Find the detailed technical specifications for the following product and return them as a JSON object.
- Manufacturer: {manufacturer}
- Model: {model}

Provide detailed information for as many of the following fields as you can find. If information for a field is not available or you are not certain, omit it entirely from the JSON. Only return accurate data.
The fields and their keys are: {fields}."""

TECHNICAL_SPECS_FROM_DOCUMENT = """Analyze the attached document (which could be a product catalog, brochure, or spec sheet) and find the detailed technical specifications for the item named "{item_name}".
Return the specifications as a JSON object.

Extract detailed information for as many of the following fields as you can find within the document for the specified item.
If information for a field is not available or you are not certain of its accuracy, omit it entirely from the JSON.
The fields and their keys are: {fields}."""
