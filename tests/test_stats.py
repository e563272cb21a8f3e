def test_counters_and_summary(relay) -> None:
    relay.stats_manager.inc("sends")
    relay.stats_manager.inc("sends", 2)
    relay.stats_manager.set_start_time()

    assert relay.stats_manager.get("sends") == 3
    text = relay.stats_manager.format_stats()
    assert text.startswith("fpingd ")
    assert "clients=1" in text
    assert "sends=3" in text
