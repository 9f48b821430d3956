SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS timer_state (
    id              INTEGER PRIMARY KEY CHECK (id = 1),
    is_running      INTEGER NOT NULL DEFAULT 0,
    remaining_time  INTEGER NOT NULL DEFAULT 300,
    total_time      INTEGER NOT NULL DEFAULT 300,
    current_speaker TEXT NOT NULL DEFAULT '',
    last_update     TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS speeches (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    speaker      TEXT NOT NULL,
    content      TEXT NOT NULL,
    debate_topic TEXT NOT NULL DEFAULT 'General Debate',
    duration     INTEGER NOT NULL DEFAULT 60,
    created_at   TEXT NOT NULL,
    likes        INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_speeches_created ON speeches (created_at DESC, id DESC);

CREATE TABLE IF NOT EXISTS resources (
    id             TEXT PRIMARY KEY,
    filename       TEXT NOT NULL,
    originalname   TEXT NOT NULL,
    mimetype       TEXT NOT NULL,
    size           INTEGER NOT NULL,
    category       TEXT NOT NULL DEFAULT 'other',
    description    TEXT NOT NULL DEFAULT '',
    uploader       TEXT NOT NULL DEFAULT 'Anonymous',
    storage_path   TEXT,
    public_url     TEXT,
    upload_time    TEXT NOT NULL,
    download_count INTEGER NOT NULL DEFAULT 0,
    likes          INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS site_stats (
    id              INTEGER PRIMARY KEY CHECK (id = 1),
    total_visits    INTEGER NOT NULL DEFAULT 0,
    today_visits    INTEGER NOT NULL DEFAULT 0,
    last_reset_date TEXT NOT NULL DEFAULT (date('now', 'localtime'))
);

CREATE TABLE IF NOT EXISTS access_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    page        TEXT NOT NULL,
    ip_address  TEXT,
    user_agent  TEXT,
    access_time TEXT NOT NULL DEFAULT (datetime('now'))
);

INSERT OR IGNORE INTO site_stats (id) VALUES (1);
"""
