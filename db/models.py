SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    collection  TEXT NOT NULL,
    id          TEXT NOT NULL,
    body        TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (collection, id)
);

CREATE INDEX IF NOT EXISTS idx_documents_timestamp
    ON documents (collection, json_extract(body, '$.timestamp'));

CREATE INDEX IF NOT EXISTS idx_documents_text_lower
    ON documents (collection, json_extract(body, '$.textLower'));

CREATE INDEX IF NOT EXISTS idx_documents_strategy
    ON documents (collection, json_extract(body, '$.analysis.strategy'));
"""
