"""Unit tests for DebounceScheduler"""

import asyncio
import pytest

from invoice_tax.engine.scheduler import DebounceScheduler


@pytest.mark.unit
class TestDebounceScheduler:
    """Test keyed debounce"""
    
    @pytest.mark.asyncio
    async def test_rescheduling_same_key_runs_once(self):
        scheduler = DebounceScheduler()
        calls = []
        
        for value in ("G", "GS", "GST"):
            scheduler.schedule("row-1", 10, lambda v=value: calls.append(v))
        await asyncio.sleep(0.05)
        
        assert calls == ["GST"]
        assert not scheduler.pending("row-1")
    
    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        scheduler = DebounceScheduler()
        calls = []
        
        scheduler.schedule((1, "tds"), 5, lambda: calls.append("tds"))
        scheduler.schedule((1, "gst"), 5, lambda: calls.append("gst"))
        await asyncio.sleep(0.05)
        
        assert sorted(calls) == ["gst", "tds"]
    
    @pytest.mark.asyncio
    async def test_coroutine_callbacks_are_tracked(self):
        scheduler = DebounceScheduler()
        done = []
        
        async def work():
            await asyncio.sleep(0.01)
            done.append(True)
        
        scheduler.schedule("k", 1, work)
        await asyncio.sleep(0.005)
        await scheduler.drain()
        
        assert done == [True]
    
    @pytest.mark.asyncio
    async def test_close_cancels_everything(self):
        scheduler = DebounceScheduler()
        calls = []
        
        scheduler.schedule("k", 10, lambda: calls.append(1))
        scheduler.close()
        await asyncio.sleep(0.03)
        
        assert calls == []
        assert scheduler.pending_count == 0
        assert not scheduler.accepting
        with pytest.raises(RuntimeError):
            scheduler.schedule("k", 10, lambda: None)
    
    @pytest.mark.asyncio
    async def test_accepting_inside_running_loop(self):
        scheduler = DebounceScheduler()
        
        assert scheduler.accepting
        scheduler.schedule("k", 10, lambda: None)
        assert scheduler.pending("k")
        scheduler.close()
    
    def test_not_accepting_without_running_loop(self):
        assert not DebounceScheduler().accepting
