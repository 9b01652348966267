#!/usr/bin/env python3
"""
Metric catalog

Static metric definitions and the field -> metric binding tables the
translator iterates over. Nothing in here does any work at import time
beyond building plain tuples.
"""

from .parsers import parse_bool, parse_number, parse_timeval
from .prometheus_wrapper import COUNTER, GAUGE

NAMESPACE = 'memcached'
SUBSYSTEM_LRU_CRAWLER = 'lru_crawler'
SUBSYSTEM_SLAB = 'slab'

SERVER_LABELS = ('server',)
VERSION_LABELS = ('server', 'version')
COMMAND_LABELS = ('server', 'command', 'status')
SLAB_LABELS = ('server', 'slab')
SLAB_LRU_LABELS = ('server', 'slab', 'lru')
SLAB_COMMAND_LABELS = ('server', 'slab', 'command', 'status')

_C = COUNTER
_G = GAUGE
_S = SUBSYSTEM_SLAB
_L = SUBSYSTEM_LRU_CRAWLER

# logical key -> (kind, subsystem, name, help, labels)
METRICS = {
    'up': (_G, '', 'up', "Could the memcached server be reached.", SERVER_LABELS),
    'uptime': (_C, '', 'uptime_seconds', "Number of seconds since the server started.", SERVER_LABELS),
    'time': (_G, '', 'time_seconds', "current UNIX time according to the server.", SERVER_LABELS),
    'version': (_G, '', 'version', "The version of this memcached server.", VERSION_LABELS),
    'rusage_user': (_C, '', 'process_user_cpu_seconds_total', "Accumulated user time for this process.", SERVER_LABELS),
    'rusage_system': (_C, '', 'process_system_cpu_seconds_total', "Accumulated system time for this process.", SERVER_LABELS),
    'bytes_read': (_C, '', 'read_bytes_total', "Total number of bytes read by this server from network.", SERVER_LABELS),
    'bytes_written': (_C, '', 'written_bytes_total', "Total number of bytes sent by this server to network.", SERVER_LABELS),
    'current_connections': (_G, '', 'current_connections', "Current number of open connections.", SERVER_LABELS),
    'max_connections': (_G, '', 'max_connections', "Maximum number of clients allowed.", SERVER_LABELS),
    'connections_total': (_C, '', 'connections_total', "Total number of connections opened since the server started running.", SERVER_LABELS),
    'rejected_connections': (_C, '', 'connections_rejected_total', "Total number of connections rejected due to hitting the memcached's -c limit in maxconns_fast mode.", SERVER_LABELS),
    'connections_yielded': (_C, '', 'connections_yielded_total', "Total number of connections yielded running due to hitting the memcached's -R limit.", SERVER_LABELS),
    'listener_disabled': (_C, '', 'connections_listener_disabled_total', "Number of times that memcached has hit its connections limit and disabled its listener.", SERVER_LABELS),
    'current_bytes': (_G, '', 'current_bytes', "Current number of bytes used to store items.", SERVER_LABELS),
    'limit_bytes': (_G, '', 'limit_bytes', "Number of bytes this server is allowed to use for storage.", SERVER_LABELS),
    'commands': (_C, '', 'commands_total', "Total number of all requests broken down by command (get, set, etc.) and status.", COMMAND_LABELS),
    'items': (_G, '', 'current_items', "Current number of items stored by this instance.", SERVER_LABELS),
    'items_total': (_C, '', 'items_total', "Total number of items stored during the life of this instance.", SERVER_LABELS),
    'evictions': (_C, '', 'items_evicted_total', "Total number of valid items removed from cache to free memory for new items.", SERVER_LABELS),
    'reclaimed': (_C, '', 'items_reclaimed_total', "Total number of times an entry was stored using memory from an expired entry.", SERVER_LABELS),
    'malloced': (_G, '', 'malloced_bytes', "Number of bytes of memory allocated to slab pages.", SERVER_LABELS),
    'accepting_connections': (_G, '', 'accepting_connections', "The Memcached server is currently accepting new connections.", SERVER_LABELS),

    'lru_crawler_enabled': (_G, _L, 'enabled', "Whether the LRU crawler is enabled.", SERVER_LABELS),
    'lru_crawler_sleep': (_G, _L, 'sleep', "Microseconds to sleep between LRU crawls.", SERVER_LABELS),
    'lru_crawler_max_items': (_G, _L, 'to_crawl', "Max items to crawl per slab per run.", SERVER_LABELS),
    'lru_maintainer_thread': (_G, _L, 'maintainer_thread', "Split LRU mode and background threads.", SERVER_LABELS),
    'lru_hot_percent': (_G, _L, 'hot_percent', "Percent of slab memory reserved for HOT LRU.", SERVER_LABELS),
    'lru_warm_percent': (_G, _L, 'warm_percent', "Percent of slab memory reserved for WARM LRU.", SERVER_LABELS),
    'lru_hot_max_age_factor': (_G, _L, 'hot_max_factor', "Set idle age of HOT LRU to COLD age * this", SERVER_LABELS),
    'lru_warm_max_age_factor': (_G, _L, 'warm_max_factor', "Set idle age of WARM LRU to COLD age * this", SERVER_LABELS),
    'lru_crawler_starts': (_C, _L, 'starts_total', "Times an LRU crawler was started.", SERVER_LABELS),
    'lru_crawler_reclaimed': (_C, _L, 'reclaimed_total', "Total items freed by LRU Crawler.", SERVER_LABELS),
    'lru_crawler_items_checked': (_C, _L, 'items_checked_total', "Total items examined by LRU Crawler.", SERVER_LABELS),
    'lru_crawler_moves_to_cold': (_C, _L, 'moves_to_cold_total', "Total number of items moved from HOT/WARM to COLD LRU's.", SERVER_LABELS),
    'lru_crawler_moves_to_warm': (_C, _L, 'moves_to_warm_total', "Total number of items moved from COLD to WARM LRU.", SERVER_LABELS),
    'lru_crawler_moves_within_lru': (_C, _L, 'moves_within_lru_total', "Total number of items reshuffled within HOT or WARM LRU's.", SERVER_LABELS),

    'slab_items_number': (_G, _S, 'current_items', "Number of items currently stored in this slab class.", SLAB_LABELS),
    'slab_items_age': (_G, _S, 'items_age_seconds', "Number of seconds the oldest item has been in the slab class.", SLAB_LABELS),
    'slab_items_crawler_reclaimed': (_C, _S, 'items_crawler_reclaimed_total', "Number of items freed by the LRU Crawler.", SLAB_LABELS),
    'slab_items_evicted': (_C, _S, 'items_evicted_total', "Total number of times an item had to be evicted from the LRU before it expired.", SLAB_LABELS),
    'slab_items_evicted_nonzero': (_C, _S, 'items_evicted_nonzero_total', "Total number of times an item which had an explicit expire time set had to be evicted from the LRU before it expired.", SLAB_LABELS),
    'slab_items_evicted_time': (_G, _S, 'items_evicted_time_seconds', "Seconds since the last access for the most recent item evicted from this class.", SLAB_LABELS),
    'slab_items_evicted_unfetched': (_C, _S, 'items_evicted_unfetched_total', "Total number of items evicted and never fetched.", SLAB_LABELS),
    'slab_items_expired_unfetched': (_C, _S, 'items_expired_unfetched_total', "Total number of valid items evicted from the LRU which were never touched after being set.", SLAB_LABELS),
    'slab_items_outofmemory': (_C, _S, 'items_outofmemory_total', "Total number of items for this slab class that have triggered an out of memory error.", SLAB_LABELS),
    'slab_items_reclaimed': (_C, _S, 'items_reclaimed_total', "Total number of items reclaimed.", SLAB_LABELS),
    'slab_items_tailrepairs': (_C, _S, 'items_tailrepairs_total', "Total number of times the entries for a particular ID need repairing.", SLAB_LABELS),
    'slab_items_moves_to_cold': (_C, _S, 'items_moves_to_cold', "Number of items moved from HOT or WARM into COLD.", SLAB_LABELS),
    'slab_items_moves_to_warm': (_C, _S, 'items_moves_to_warm', "Number of items moves from COLD into WARM.", SLAB_LABELS),
    'slab_items_moves_within_lru': (_C, _S, 'items_moves_within_lru', "Number of times active items were bumped within HOT or WARM.", SLAB_LABELS),
    'slab_items_hot': (_G, _S, 'hot_items', "Number of items presently stored in the HOT LRU.", SLAB_LABELS),
    'slab_items_warm': (_G, _S, 'warm_items', "Number of items presently stored in the WARM LRU.", SLAB_LABELS),
    'slab_items_cold': (_G, _S, 'cold_items', "Number of items presently stored in the COLD LRU.", SLAB_LABELS),
    'slab_items_temporary': (_G, _S, 'temporary_items', "Number of items presently stored in the TEMPORARY LRU.", SLAB_LABELS),
    'slab_items_age_hot': (_G, _S, 'hot_age_seconds', "Age of the oldest item in HOT LRU.", SLAB_LABELS),
    'slab_items_age_warm': (_G, _S, 'warm_age_seconds', "Age of the oldest item in WARM LRU.", SLAB_LABELS),
    'slab_lru_hits': (_C, _S, 'lru_hits_total', "Number of get_hits to the LRU.", SLAB_LRU_LABELS),
    'slab_chunk_size': (_G, _S, 'chunk_size_bytes', "Number of bytes allocated to each chunk within this slab class.", SLAB_LABELS),
    'slab_chunks_per_page': (_G, _S, 'chunks_per_page', "Number of chunks within a single page for this slab class.", SLAB_LABELS),
    'slab_current_pages': (_G, _S, 'current_pages', "Number of pages allocated to this slab class.", SLAB_LABELS),
    'slab_current_chunks': (_G, _S, 'current_chunks', "Number of chunks allocated to this slab class.", SLAB_LABELS),
    'slab_chunks_used': (_G, _S, 'chunks_used', "Number of chunks allocated to an item.", SLAB_LABELS),
    'slab_chunks_free': (_G, _S, 'chunks_free', "Number of chunks not yet allocated items.", SLAB_LABELS),
    'slab_chunks_free_end': (_G, _S, 'chunks_free_end', "Number of free chunks at the end of the last allocated page.", SLAB_LABELS),
    'slab_mem_requested': (_G, _S, 'mem_requested_bytes', "Number of bytes of memory actual items take up within a slab.", SLAB_LABELS),
    'slab_commands': (_C, _S, 'commands_total', "Total number of all requests broken down by command (get, set, etc.) and status per slab.", SLAB_COMMAND_LABELS),

    'extstore_compact_lost': (_C, '', 'extstore_compact_lost_total', "Total number of items lost because they were locked during extstore compaction.", SERVER_LABELS),
    'extstore_compact_rescues': (_C, '', 'extstore_compact_rescued_total', "Total number of items moved to a new page during extstore compaction,", SERVER_LABELS),
    'extstore_compact_skipped': (_C, '', 'extstore_compact_skipped_total', "Total number of items dropped due to inactivity during extstore compaction.", SERVER_LABELS),
    'extstore_page_allocs': (_C, '', 'extstore_pages_allocated_total', "Total number of times a page was allocated in extstore.", SERVER_LABELS),
    'extstore_page_evictions': (_C, '', 'extstore_pages_evicted_total', "Total number of times a page was evicted from extstore.", SERVER_LABELS),
    'extstore_page_reclaims': (_C, '', 'extstore_pages_reclaimed_total', "Total number of times an empty extstore page was freed.", SERVER_LABELS),
    'extstore_pages_free': (_G, '', 'extstore_pages_free', "Number of extstore pages not yet containing any items.", SERVER_LABELS),
    'extstore_pages_used': (_G, '', 'extstore_pages_used', "Number of extstore pages containing at least one item.", SERVER_LABELS),
    'extstore_objects_evicted': (_C, '', 'extstore_objects_evicted_total', "Total number of items evicted from extstore to free up space.", SERVER_LABELS),
    'extstore_objects_read': (_C, '', 'extstore_objects_read_total', "Total number of items read from extstore.", SERVER_LABELS),
    'extstore_objects_written': (_C, '', 'extstore_objects_written_total', "Total number of items written to extstore.", SERVER_LABELS),
    'extstore_objects_used': (_G, '', 'extstore_objects_used', "Number of items stored in extstore.", SERVER_LABELS),
    'extstore_bytes_evicted': (_C, '', 'extstore_bytes_evicted_total', "Total number of bytes evicted from extstore to free up space.", SERVER_LABELS),
    'extstore_bytes_written': (_C, '', 'extstore_bytes_written_total', "Total number of bytes written to extstore.", SERVER_LABELS),
    'extstore_bytes_read': (_C, '', 'extstore_bytes_read_total', "Total number of bytes read from extstore.", SERVER_LABELS),
    'extstore_bytes_used': (_G, '', 'extstore_bytes_used', "Current number of bytes used to store items in extstore.", SERVER_LABELS),
    'extstore_bytes_fragmented': (_G, '', 'extstore_bytes_fragmented', "Current number of bytes in extstore pages allocated but not used to store an object.", SERVER_LABELS),
    'extstore_bytes_limit': (_G, '', 'extstore_bytes_limit', "Number of bytes of external storage allocated for this server.", SERVER_LABELS),
    'extstore_io_queue_depth': (_G, '', 'extstore_io_queue_depth', "Number of items in the I/O queue waiting to be processed.", SERVER_LABELS),
}

# Commands reported as <verb>_hits / <verb>_misses
COMMAND_VERBS = ('get', 'delete', 'incr', 'decr', 'cas', 'touch')

# memcached counts cas attempts in cmd_set as well; these are subtracted to get plain sets
SERVER_CAS_FIELDS = ('cas_hits', 'cas_misses', 'cas_badval')
# per-slab stats only report hits and badval
SLAB_CAS_FIELDS = ('cas_hits', 'cas_badval')

# (field, metric key, parser) bound against the top-level stats record
GENERAL_FIELDS = (
    ('rusage_user', 'rusage_user', parse_timeval),
    ('rusage_system', 'rusage_system', parse_timeval),
    ('bytes', 'current_bytes', parse_number),
    ('limit_maxbytes', 'limit_bytes', parse_number),
    ('curr_items', 'items', parse_number),
    ('total_items', 'items_total', parse_number),
    ('bytes_read', 'bytes_read', parse_number),
    ('bytes_written', 'bytes_written', parse_number),
    ('curr_connections', 'current_connections', parse_number),
    ('total_connections', 'connections_total', parse_number),
    ('rejected_connections', 'rejected_connections', parse_number),
    ('conn_yields', 'connections_yielded', parse_number),
    ('listen_disabled_num', 'listener_disabled', parse_number),
    ('evictions', 'evictions', parse_number),
    ('reclaimed', 'reclaimed', parse_number),
    ('lru_crawler_starts', 'lru_crawler_starts', parse_number),
    ('crawler_items_checked', 'lru_crawler_items_checked', parse_number),
    ('crawler_reclaimed', 'lru_crawler_reclaimed', parse_number),
    ('moves_to_cold', 'lru_crawler_moves_to_cold', parse_number),
    ('moves_to_warm', 'lru_crawler_moves_to_warm', parse_number),
    ('moves_within_lru', 'lru_crawler_moves_within_lru', parse_number),
    ('total_malloced', 'malloced', parse_number),
    ('accepting_conns', 'accepting_connections', parse_number),
)

# Only reported while extstore is active
EXTSTORE_LIMIT_FIELD = 'extstore_limit_maxbytes'
EXTSTORE_FIELDS = (
    ('extstore_compact_lost', 'extstore_compact_lost'),
    ('extstore_compact_rescues', 'extstore_compact_rescues'),
    ('extstore_compact_skipped', 'extstore_compact_skipped'),
    ('extstore_page_allocs', 'extstore_page_allocs'),
    ('extstore_page_evictions', 'extstore_page_evictions'),
    ('extstore_page_reclaims', 'extstore_page_reclaims'),
    ('extstore_pages_free', 'extstore_pages_free'),
    ('extstore_pages_used', 'extstore_pages_used'),
    ('extstore_objects_evicted', 'extstore_objects_evicted'),
    ('extstore_objects_read', 'extstore_objects_read'),
    ('extstore_objects_written', 'extstore_objects_written'),
    ('extstore_objects_used', 'extstore_objects_used'),
    ('extstore_bytes_evicted', 'extstore_bytes_evicted'),
    ('extstore_bytes_written', 'extstore_bytes_written'),
    ('extstore_bytes_read', 'extstore_bytes_read'),
    ('extstore_bytes_used', 'extstore_bytes_used'),
    ('extstore_bytes_fragmented', 'extstore_bytes_fragmented'),
    (EXTSTORE_LIMIT_FIELD, 'extstore_bytes_limit'),
    ('extstore_io_queue', 'extstore_io_queue_depth'),
)

# "stats items" fields always probed per slab
SLAB_ITEM_FIELDS = (
    ('number', 'slab_items_number'),
    ('age', 'slab_items_age'),
)

# "stats items" LRU hit counters: field -> lru label
SLAB_LRU_HIT_FIELDS = (
    ('hits_to_hot', 'hot'),
    ('hits_to_warm', 'warm'),
    ('hits_to_cold', 'cold'),
    ('hits_to_temp', 'temporary'),
)

# "stats items" fields only bound when the slab reports them
SLAB_OPTIONAL_ITEM_FIELDS = (
    ('crawler_reclaimed', 'slab_items_crawler_reclaimed'),
    ('evicted', 'slab_items_evicted'),
    ('evicted_nonzero', 'slab_items_evicted_nonzero'),
    ('evicted_time', 'slab_items_evicted_time'),
    ('evicted_unfetched', 'slab_items_evicted_unfetched'),
    ('expired_unfetched', 'slab_items_expired_unfetched'),
    ('outofmemory', 'slab_items_outofmemory'),
    ('reclaimed', 'slab_items_reclaimed'),
    ('tailrepairs', 'slab_items_tailrepairs'),
    ('moves_to_cold', 'slab_items_moves_to_cold'),
    ('moves_to_warm', 'slab_items_moves_to_warm'),
    ('moves_within_lru', 'slab_items_moves_within_lru'),
    ('number_hot', 'slab_items_hot'),
    ('number_warm', 'slab_items_warm'),
    ('number_cold', 'slab_items_cold'),
    ('number_temp', 'slab_items_temporary'),
    ('age_hot', 'slab_items_age_hot'),
    ('age_warm', 'slab_items_age_warm'),
)

# "stats slabs" gauges per slab
SLAB_FIELDS = (
    ('chunk_size', 'slab_chunk_size'),
    ('chunks_per_page', 'slab_chunks_per_page'),
    ('total_pages', 'slab_current_pages'),
    ('total_chunks', 'slab_current_chunks'),
    ('used_chunks', 'slab_chunks_used'),
    ('free_chunks', 'slab_chunks_free'),
    ('free_chunks_end', 'slab_chunks_free_end'),
    ('mem_requested', 'slab_mem_requested'),
)

LRU_CRAWLER_FLAG = 'lru_crawler'
# "stats settings" fields bound while the LRU crawler is enabled
LRU_CRAWLER_SETTINGS = (
    (LRU_CRAWLER_FLAG, 'lru_crawler_enabled', parse_bool),
    ('lru_crawler_sleep', 'lru_crawler_sleep', parse_number),
    ('lru_crawler_tocrawl', 'lru_crawler_max_items', parse_number),
    ('lru_maintainer_thread', 'lru_maintainer_thread', parse_bool),
    ('hot_lru_pct', 'lru_hot_percent', parse_number),
    ('warm_lru_pct', 'lru_warm_percent', parse_number),
    ('hot_max_factor', 'lru_hot_max_age_factor', parse_number),
    ('warm_max_factor', 'lru_warm_max_age_factor', parse_number),
)
